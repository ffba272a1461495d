"""Pool manager, job dispatcher, completion monitor."""
