"""Export pipeline: repository -> metadata tree -> workbook."""
