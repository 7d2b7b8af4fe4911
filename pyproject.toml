[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "metricsd"
version = "0.1.0"
description = "A metrics collection agent and an HTTP server that stores gauge and counter metrics"
requires-python = ">=3.10"
keywords = ["metrics", "monitoring", "agent", "gauge", "counter", "wsgi"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "werkzeug",
    "requests",
    "psutil",
    "sqlalchemy",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
metricsd-server = "metricsd.server.app:main"
metricsd-agent = "metricsd.agent.app:main"

[tool.hatch.build.targets.wheel]
packages = ["metricsd"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
