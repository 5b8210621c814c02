"""
Domain services.

- applications: application records and daily counts
- plans: subscription plans and usage quotas
- notifications: match notifications and application reviews
- job_scanner: per-user job scans
- resume_customizer: job-specific résumé ordering
- interview: mock interview sessions
"""
