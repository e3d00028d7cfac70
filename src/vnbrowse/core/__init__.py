"""Core domain logic: identifiers, query models, filters and record decoding."""
