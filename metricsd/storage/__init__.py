"""In-memory, JSON-file and SQL database storage for gauge and counter metrics."""