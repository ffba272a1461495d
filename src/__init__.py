"""batchocr: batch OCR over a remote worker pool."""
