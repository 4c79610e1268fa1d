from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter('ollama_bridge_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'http_status'])
REQUEST_LATENCY = Histogram('ollama_bridge_request_latency_seconds', 'Latency per endpoint', ['endpoint'])
UPSTREAM_ERRORS = Counter('ollama_bridge_upstream_errors_total', 'Failed provider calls', ['kind'])
STREAM_OUTCOMES = Counter('ollama_bridge_streams_total', 'Streaming chats by final state', ['state'])
