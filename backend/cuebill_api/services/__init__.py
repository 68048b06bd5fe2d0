"""
Services module for business logic.

- domain/: Application services (session lifecycle, invoices, pricing) - USE THESE
- billing/: Pure billing arithmetic and invoice assembly
- sequence: Per-scope sequence numbers for session codes and invoice numbers
- locks: Per-session in-process locks

Usage:
    from cuebill_api.services.domain import SessionService

    service = SessionService(db)
    session = service.start_session(org_id, table_id, service_type_id, guest_name="Ana")
"""
