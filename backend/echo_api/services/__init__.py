"""Chat pipeline services: personas, history, model gateway, orchestration, auth."""
