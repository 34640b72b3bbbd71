"""eCTD package assembly, XML backbone, cover page and export."""
