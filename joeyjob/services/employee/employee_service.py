# joeyjob/services/employee/employee_service.py
"""Organization employee roster and SimPro sync"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from joeyjob.models.organization_employee import OrganizationEmployee
from joeyjob.services.simpro.simpro_client import SimproApiError, SimproClient

logger = logging.getLogger(__name__)


class EmployeeService:
    """Handles organization employee operations"""

    @staticmethod
    def list_employees(
            db: Session,
            organization_id: str,
            include_inactive: bool = False
    ) -> List[OrganizationEmployee]:
        query = db.query(OrganizationEmployee).filter(OrganizationEmployee.organization_id == organization_id)
        if not include_inactive:
            query = query.filter(OrganizationEmployee.is_active == True)  # noqa: E712
        return query.order_by(OrganizationEmployee.simpro_employee_name.asc()).all()

    @staticmethod
    def get_enabled_employees(
            db: Session,
            organization_id: str,
            employee_ids: List[str]
    ) -> List[OrganizationEmployee]:
        """Enabled, active employees among the given ids, in the order of employee_ids"""
        if not employee_ids:
            return []

        rows = db.query(OrganizationEmployee).filter(
            OrganizationEmployee.organization_id == organization_id,
            OrganizationEmployee.id.in_(employee_ids),
            OrganizationEmployee.is_enabled == True,  # noqa: E712
            OrganizationEmployee.is_active == True,  # noqa: E712
        ).all()

        by_id = {row.id: row for row in rows}
        ordered = []
        for employee_id in dict.fromkeys(employee_ids):
            if employee_id in by_id:
                ordered.append(by_id[employee_id])
        return ordered

    @staticmethod
    def set_enabled(db: Session, organization_id: str, employee_id: str, is_enabled: bool) -> Optional[OrganizationEmployee]:
        employee = db.query(OrganizationEmployee).filter(
            OrganizationEmployee.id == employee_id,
            OrganizationEmployee.organization_id == organization_id,
        ).first()
        if not employee:
            return None

        employee.is_enabled = is_enabled
        db.commit()
        db.refresh(employee)
        logger.info(f"Employee {employee_id} {'enabled' if is_enabled else 'disabled'} for org {organization_id}")
        return employee

    @staticmethod
    async def sync_organization_employees(
            db: Session,
            organization_id: str,
            simpro_client: SimproClient
    ) -> Dict[str, Any]:
        """
        Mirror the SimPro employee list into organization_employees.

        New employees are added disabled so an admin opts them in; existing rows
        get refreshed names/emails; rows missing from SimPro are marked inactive.
        A SimPro failure is recorded on existing rows and re-raised.
        """
        existing = {
            employee.simpro_employee_id: employee
            for employee in db.query(OrganizationEmployee).filter(
                OrganizationEmployee.organization_id == organization_id
            ).all()
        }
        now = datetime.now(timezone.utc)

        try:
            remote_employees = await simpro_client.get_employees()
        except SimproApiError as e:
            logger.error(f"Employee sync failed for org {organization_id}: {e.message}")
            for employee in existing.values():
                employee.sync_error = e.message
            db.commit()
            raise

        added, updated, deactivated = 0, 0, 0
        seen_ids = set()
        for remote in remote_employees or []:
            simpro_id = remote.get("ID")
            if simpro_id is None:
                continue
            seen_ids.add(simpro_id)
            name = remote.get("Name") or f"Employee {simpro_id}"
            email = remote.get("Email")

            employee = existing.get(simpro_id)
            if employee is None:
                db.add(OrganizationEmployee(
                    organization_id=organization_id,
                    simpro_employee_id=simpro_id,
                    simpro_employee_name=name,
                    simpro_employee_email=email,
                    is_enabled=False,
                    is_active=True,
                    last_sync_at=now,
                ))
                added += 1
                continue

            employee.simpro_employee_name = name
            employee.simpro_employee_email = email or employee.simpro_employee_email
            employee.is_active = True
            employee.last_sync_at = now
            employee.sync_error = None
            updated += 1

        for simpro_id, employee in existing.items():
            if simpro_id not in seen_ids and employee.is_active:
                employee.is_active = False
                employee.last_sync_at = now
                deactivated += 1

        db.commit()
        logger.info(
            f"Synced employees for org {organization_id}: "
            f"{added} added, {updated} updated, {deactivated} deactivated"
        )
        return {"added": added, "updated": updated, "deactivated": deactivated, "total": len(seen_ids)}
