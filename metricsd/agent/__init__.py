"""Agent that collects process and system metrics and reports them to the server."""