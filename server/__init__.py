# QueryGate host adapters: SQLAlchemy store, LLM translators, HTTP routes
