"""Lambda handlers deployed by the image pipeline stack."""
