"""Multi-modal item capture (photo, barcode, QR, voice) feeding the item form."""
