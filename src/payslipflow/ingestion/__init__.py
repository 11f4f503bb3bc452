"""CSV ingestion: request to payslip records, with job tracking and logs."""
