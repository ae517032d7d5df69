"""Domain services: access control, batches, content, submissions."""
