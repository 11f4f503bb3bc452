"""PayslipFlow: payroll CSV mapping and payslip ingestion."""
