# joeyjob/services/simpro/simpro_client.py
"""
Async client for the SimPro REST API.

Handles bearer auth with a single token refresh on 401, and the
customer -> job -> section -> cost centre -> schedule sequence that
creates a booking in SimPro.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from joeyjob.config.settings import get_settings
from joeyjob.schemas.simpro import (
    SimproBookingRequest,
    SimproBookingResult,
    SimproCustomerInput,
    SimproJobInput,
    SimproScheduleInput,
)

settings = get_settings()
logger = logging.getLogger(__name__)

TokenRefreshCallback = Callable[[str, str, datetime, datetime], Awaitable[None]]


class SimproConfigurationError(Exception):
    """The organization has no usable SimPro connection"""


class SimproApiError(Exception):
    """A SimPro request failed; status_code is None for transport errors"""

    def __init__(self, message: str, status_code: Optional[int] = None, endpoint: Optional[str] = None,
                 response_text: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint
        self.response_text = response_text


class SimproAuthenticationError(SimproApiError):
    """Stored SimPro credentials were rejected and could not be refreshed"""

    def __init__(self, message: str, endpoint: Optional[str] = None, response_text: Optional[str] = None):
        super().__init__(message, status_code=401, endpoint=endpoint, response_text=response_text)


def _resource_id(resource: Any, name: str) -> int:
    """ID of a created SimPro resource; a response without one is an API error"""
    if not isinstance(resource, dict) or resource.get("ID") is None:
        raise SimproApiError(f"SimPro did not return an ID for the created {name}", response_text=str(resource)[:500])
    return resource["ID"]


class SimproClient:
    """Client for a single SimPro build (company 0)"""

    COMPANY_PATH = "/companies/0"

    def __init__(
            self,
            build_name: str,
            domain: str,
            access_token: str,
            refresh_token: str,
            client_id: Optional[str] = None,
            client_secret: Optional[str] = None,
            on_token_refresh: Optional[TokenRefreshCallback] = None,
            http_client: Optional[httpx.AsyncClient] = None,
    ):
        root = f"https://{build_name}.{domain}"
        self.base_url = f"{root}/api/v1.0"
        self.token_url = f"{root}/oauth2/token"
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.client_id = client_id if client_id is not None else settings.SIMPRO_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.SIMPRO_CLIENT_SECRET
        self.on_token_refresh = on_token_refresh
        self.token_expires_at: Optional[datetime] = None

        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.SIMPRO_REQUEST_TIMEOUT,
            follow_redirects=True
        )

    async def __aenter__(self) -> "SimproClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _refresh_access_token(self) -> None:
        """Exchange the refresh token for a new token pair"""
        if not self.refresh_token:
            raise SimproAuthenticationError("No refresh token available for token refresh")

        logger.info(f"Refreshing SimPro access token for {self.base_url}")
        try:
            response = await self.http_client.post(
                self.token_url,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": self.refresh_token,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
            )
        except httpx.RequestError as e:
            raise SimproApiError(f"Token refresh request failed: {e}", endpoint=self.token_url) from e

        if response.status_code != 200:
            raise SimproAuthenticationError(
                f"Failed to refresh token ({response.status_code})",
                endpoint=self.token_url,
                response_text=response.text[:500],
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SimproAuthenticationError(
                "Invalid token response: body is not JSON",
                endpoint=self.token_url,
                response_text=response.text[:500],
            ) from e
        if not isinstance(data, dict) or not data.get("access_token") or not data.get("refresh_token"):
            raise SimproAuthenticationError(
                "Invalid token response: missing access_token or refresh_token",
                endpoint=self.token_url,
            )

        now = datetime.now(timezone.utc)
        self.access_token = data["access_token"]
        self.refresh_token = data["refresh_token"]
        self.token_expires_at = now + timedelta(seconds=int(data.get("expires_in", 3600)))
        refresh_expires_at = now + timedelta(days=settings.SIMPRO_REFRESH_TOKEN_TTL_DAYS)

        if self.on_token_refresh:
            await self.on_token_refresh(
                self.access_token, self.refresh_token, self.token_expires_at, refresh_expires_at
            )
        else:
            logger.warning("SimPro token refreshed without a persistence callback; new tokens live in memory only")

    async def _request(
            self,
            method: str,
            endpoint: str,
            json: Optional[Dict[str, Any]] = None,
            params: Optional[Dict[str, Any]] = None,
            _retried: bool = False,
    ) -> Any:
        """Make an authenticated request, refreshing the token once on 401"""
        url = endpoint if endpoint.startswith("http") else f"{self.base_url}{endpoint}"
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

        try:
            response = await self.http_client.request(method, url, json=json, params=params, headers=headers)
        except httpx.TimeoutException as e:
            raise SimproApiError(f"SimPro request timed out: {method} {endpoint}", endpoint=endpoint) from e
        except httpx.RequestError as e:
            raise SimproApiError(f"SimPro request error: {e}", endpoint=endpoint) from e

        if response.status_code == 401:
            if _retried:
                raise SimproAuthenticationError(
                    "Authentication failed: Unable to refresh access token",
                    endpoint=endpoint,
                    response_text=response.text[:500],
                )
            await self._refresh_access_token()
            return await self._request(method, endpoint, json=json, params=params, _retried=True)

        if not response.is_success:
            raise SimproApiError(
                f"API request failed: {response.reason_phrase} ({response.status_code})",
                status_code=response.status_code,
                endpoint=endpoint,
                response_text=response.text[:1000],
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise SimproApiError(
                "Invalid JSON response",
                status_code=response.status_code,
                endpoint=endpoint,
                response_text=response.text[:1000],
            ) from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def test_connection(self) -> Dict[str, Any]:
        return await self._request("GET", self.COMPANY_PATH)

    async def get_employees(self) -> List[Dict[str, Any]]:
        return await self._request("GET", f"{self.COMPANY_PATH}/employees/")

    async def get_employee_details(self, employee_id: int) -> Dict[str, Any]:
        """Employee record including weekly Availability blocks"""
        return await self._request("GET", f"{self.COMPANY_PATH}/employees/{employee_id}")

    async def get_schedules(
            self,
            start_date: Optional[str] = None,
            end_date: Optional[str] = None,
            staff_id: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Company-wide schedules, optionally filtered by staff and date range"""
        params: Dict[str, Any] = {}
        if staff_id:
            params["Staff.ID"] = staff_id
        if start_date and end_date:
            params["Date"] = f"between({start_date},{end_date})"

        logger.debug(f"Fetching SimPro schedules with {params}")
        result = await self._request("GET", f"{self.COMPANY_PATH}/schedules/", params=params or None)
        return result if isinstance(result, list) else []

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_customer(self, customer: SimproCustomerInput, create_site: bool = True) -> Dict[str, Any]:
        payload = {
            "GivenName": customer.given_name,
            "FamilyName": customer.family_name,
            "Email": customer.email,
            "Phone": customer.phone,
            "Address": {
                "Line1": customer.address.line1,
                "City": customer.address.city,
                "State": customer.address.state,
                "PostalCode": customer.address.postal_code,
                "Country": customer.address.country,
            },
        }
        return await self._request(
            "POST",
            f"{self.COMPANY_PATH}/customers/individuals/",
            json=payload,
            params={"createSite": "true" if create_site else "false"},
        )

    async def create_job(self, job: SimproJobInput, customer_id: int, site_id: int) -> Dict[str, Any]:
        payload = {
            "Type": job.type,
            "Name": job.name,
            "Description": job.description,
            "Customer": customer_id,
            "Site": site_id,
        }
        if job.notes:
            payload["Notes"] = job.notes
        return await self._request("POST", f"{self.COMPANY_PATH}/jobs/", json=payload)

    async def create_section(self, job_id: int) -> Dict[str, Any]:
        return await self._request("POST", f"{self.COMPANY_PATH}/jobs/{job_id}/sections/", json={})

    async def create_section_cost_center(self, job_id: int, section_id: int) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"{self.COMPANY_PATH}/jobs/{job_id}/sections/{section_id}/costCenters/",
            json={
                "CostCenter": settings.SIMPRO_COST_CENTER_TEMPLATE_ID,
                "Name": "Default Cost Center",
            },
        )

    async def schedule_job(self, job_id: int, schedule: SimproScheduleInput) -> Dict[str, Any]:
        """Schedule a job: SimPro needs a section and cost centre to hang the schedule on"""
        section = await self.create_section(job_id)
        section_id = _resource_id(section, "section")
        cost_center = await self.create_section_cost_center(job_id, section_id)
        cost_center_id = _resource_id(cost_center, "cost center")

        payload = {
            "Staff": schedule.employee_id,
            "Date": schedule.blocks[0].date,
            "Blocks": [
                {
                    "StartTime": block.start_time,
                    "EndTime": block.end_time,
                    "ScheduleRate": settings.SIMPRO_SCHEDULE_RATE_ID,
                }
                for block in schedule.blocks
            ],
        }
        return await self._request(
            "POST",
            f"{self.COMPANY_PATH}/jobs/{job_id}/sections/{section_id}/costCenters/{cost_center_id}/schedules/",
            json=payload,
        )

    async def create_booking(self, request: SimproBookingRequest) -> SimproBookingResult:
        """Create customer (with site), job and schedule as one logical operation"""
        customer = await self.create_customer(request.customer, create_site=True)
        sites = customer.get("Sites") or []
        if not sites:
            raise SimproApiError("Failed to create customer site", endpoint="customers/individuals")

        job = await self.create_job(
            request.job,
            customer_id=_resource_id(customer, "customer"),
            site_id=_resource_id(sites[0], "site"),
        )
        schedule = await self.schedule_job(_resource_id(job, "job"), request.schedule)

        logger.info(
            f"SimPro booking created: job={job.get('ID')} customer={customer.get('ID')} "
            f"schedule={schedule.get('ID')} staff={request.schedule.employee_id}"
        )
        return SimproBookingResult(customer=customer, job=job, schedule=schedule)
