"""chatstream — streaming chat service: NDJSON stream encoder, session store, and async client."""
