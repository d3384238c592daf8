"""Request/response schemas shared by the server and API clients."""
