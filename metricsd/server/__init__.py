"""WSGI server that receives, stores and serves gauge and counter metrics."""