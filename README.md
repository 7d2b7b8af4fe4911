# metricsd

metricsd has two parts:

- **metricsd-agent** samples metrics of its own process and of the machine
  at a fixed poll interval. It sends them in batches to the server at a
  fixed report interval.
- **metricsd-server** is an HTTP (WSGI) server that receives gauge and
  counter metrics. It stores them in memory, in a JSON file, or in a
  PostgreSQL database, and serves them back.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Metric types

- **gauge**: a floating-point value. Each update replaces the stored value.
- **counter**: a 64-bit integer. Each update adds its delta to the stored value.

## Running the server

```
metricsd-server -a localhost:8080
```

The server reads its settings from command-line flags and from environment
variables. An environment variable that is set and not empty takes
precedence over the flag.

| Flag | Variable            | Meaning                                                            | Default          |
|------|---------------------|--------------------------------------------------------------------|------------------|
| `-a` | `ADDRESS`           | address to listen on, as `host:port`                               | `localhost:8080` |
| `-i` | `STORE_INTERVAL`    | seconds between saves to the JSON file; `0` saves on every update  | `300`            |
| `-f` | `FILE_STORAGE_PATH` | path of the JSON file used for storage                             | `db.json`        |
| `-r` | `RESTORE`           | load the saved metrics from the JSON file at start-up              | `true`           |
| `-d` | `DATABASE_DSN`      | PostgreSQL connection string                                       | empty            |
| `-k` | `KEY`               | key used to check request bodies and sign response bodies          | empty            |

`-r` may be given alone (meaning true) or with a value such as `true`,
`false`, `1` or `0`. The server chooses its storage in this order:

1. If a database DSN is set, it uses PostgreSQL through SQLAlchemy. A
   `postgres://` DSN is accepted as well as `postgresql://`.
2. If not, and a file storage path is set, it keeps the metrics in memory
   and writes them to that JSON file. With a positive store interval a
   background thread saves them periodically. With `0` every update is
   saved at once.
3. Otherwise it keeps the metrics in memory only.

The server logs every request at debug level to standard error. The log
line gives the URI, method, status, duration and response size.

### Endpoints

| Method | Path                            | Description                                                            |
|--------|---------------------------------|------------------------------------------------------------------------|
| GET    | `/`                             | HTML page that lists every metric                                      |
| GET    | `/value/{type}/{name}`          | value of one metric as plain text; 404 if the metric or type is unknown |
| POST   | `/value/`                       | JSON body `{"id": ..., "type": ...}`; replies with the metric as JSON  |
| POST   | `/update/{type}/{name}/{value}` | updates one metric from the path; 400 for a bad type or value          |
| POST   | `/update/`                      | updates one metric from a JSON body; replies with the new value        |
| POST   | `/updates/`                     | updates a JSON array of metrics in one batch; empty reply body         |
| GET    | `/ping`                         | 200 if the database is reachable; 500 if it is not or none is configured |

The JSON endpoints accept only `Content-Type: application/json`. They
reply 415 to any other content type.

A metric in JSON looks like this:

```json
{"id": "PollCount", "type": "counter", "delta": 5}
{"id": "Alloc", "type": "gauge", "value": 123.45}
```

Request bodies sent with `Content-Encoding: gzip` are decompressed.
Responses are gzip-compressed when the request sends
`Accept-Encoding: gzip` and its `Accept` header is exactly
`application/json` or `text/html`.

When a key is set, the server checks the `HashSHA256` header of any
request that carries one. That header holds the base64-encoded HMAC-SHA256
of the body as it was sent. A request with a wrong signature gets a 400
reply. The server also signs every non-empty response body in the same
header.

Example:

```
curl -X POST http://localhost:8080/update/gauge/Temperature/21.5
curl http://localhost:8080/value/gauge/Temperature
```

## Running the agent

```
metricsd-agent -a localhost:8080 -p 2 -r 10
```

| Flag | Variable          | Meaning                                    | Default          |
|------|-------------------|--------------------------------------------|------------------|
| `-a` | `ADDRESS`         | server address                             | `localhost:8080` |
| `-r` | `REPORT_INTERVAL` | seconds between reports to the server      | `10`             |
| `-p` | `POLL_INTERVAL`   | seconds between metric samples             | `10`             |
| `-k` | `KEY`             | key used to sign request bodies            | empty            |
| `-l` | `RATE_LIMIT`      | number of requests sent at the same time   | `100`            |

An environment variable that is set and not empty takes precedence over
the flag. The agent runs until it is interrupted.

The agent collects these metrics:

- Memory and garbage-collector gauges of the agent's own Python process,
  such as `Alloc`, `HeapObjects`, `NumGC` and `PauseTotalNs`, and a
  `RandomValue` gauge. Some gauges in this set have no meaning for a
  Python process, such as `BuckHashSys` and `MCacheSys`. These are
  always sent as `0`.
- `TotalMemory` and `FreeMemory` of the machine, and one `CPUutilizationN`
  gauge per CPU core.
- The `PollCount` counter, which is the number of polls done so far.

The agent sends metrics as gzip-compressed JSON batches to `/updates/`. If
a request cannot reach the server, the agent tries again after 1, 3 and 5
seconds. An HTTP error status from the server is not retried. To sign the
requests, give the agent the same key as the server:

```
KEY=secret metricsd-agent
KEY=secret metricsd-server
```

## Using the package from Python

- `metricsd.server.router.create_app(store, pinger, hash_key, logger)`
  builds the WSGI application. `store` is any object with the methods of
  `metricsd.storage.memory.MemStorage`.
- The storages are `MemStorage` in `metricsd.storage.memory`,
  `FileStorage` in `metricsd.storage.jsonfile` and `PostgresStorage` in
  `metricsd.storage.postgres`.
- `metricsd.agent.client.ServerClient` sends gauges and counters to a
  running server.

## Limitations

- No database schema scripts are shipped. `run_migrations` in
  `metricsd.storage.migrations` applies the `*.sql` files it finds in
  `<scripts_dir>/server`. By default it looks in a `sql` directory next to
  that module, which is empty, so the server applies nothing at start-up.
  Create the tables `gauge (id, value)` and `counter (id, delta)` yourself,
  with `id` as the primary key.
- No PostgreSQL driver is installed with the package. Install one that
  SQLAlchemy can use before you set a database DSN.