"""Header mapping: builder, legacy adapters, validation and store."""
