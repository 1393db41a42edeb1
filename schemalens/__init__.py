"""SchemaLens: schema mirror synchronization, change review and ontology enrichment."""
