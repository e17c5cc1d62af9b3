"""
Remote Booking API Client

HTTP/JSON adapter for the booking backend: venue catalog, live sessions,
discount validation and checkout creation.

Error mapping:
- Transport failure / timeout → NetworkError
- 404 on a lookup → NotFoundError
- 409 on checkout → AvailabilityConflictError
- Other 4xx on checkout → CheckoutResult(error=...)
- 5xx → NetworkError (status code preserved)
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import (
    AvailabilityConflictError,
    NetworkError,
    NotFoundError,
)
from src.platform.logging.loguru_io import Logger
from src.service.booking_widget.app.dto.catalog_dto import Venue
from src.service.booking_widget.app.dto.checkout_dto import CheckoutRequest, CheckoutResult
from src.service.booking_widget.app.interface.i_discount_validation_gateway import (
    IDiscountValidationGateway,
)
from src.service.booking_widget.app.interface.i_live_session_gateway import ILiveSessionGateway
from src.service.booking_widget.app.interface.i_reservation_gateway import IReservationGateway
from src.service.booking_widget.app.interface.i_venue_catalog_gateway import IVenueCatalogGateway
from src.service.booking_widget.domain.enum import DiscountType
from src.service.booking_widget.domain.value_object.discount import (
    GiftCardValidationResult,
    PromoCodeDiscount,
    PromoValidationResult,
    TicketTypePromo,
    TicketTypePromoValidationResult,
)
from src.service.booking_widget.domain.value_object.live_session import LiveSession
from src.service.booking_widget.domain.value_object.money import money_to_json


def build_http_client() -> httpx.AsyncClient:
    api_key = settings.REMOTE_API_KEY.get_secret_value()
    return httpx.AsyncClient(
        base_url=settings.REMOTE_API_BASE_URL,
        timeout=settings.REMOTE_API_TIMEOUT,
        headers={'Authorization': f'Bearer {api_key}', 'apikey': api_key},
    )


class RemoteBookingApiClient(
    IVenueCatalogGateway, ILiveSessionGateway, IDiscountValidationGateway, IReservationGateway
):
    def __init__(self, *, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.http_client = http_client or build_http_client()

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self.http_client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            Logger.base.warning(f'🌐 [REMOTE] {method} {path} failed: {type(e).__name__}: {e}')
            raise NetworkError(f'Booking service unreachable: {e}') from e

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(
                f'Malformed response from {response.request.url.path}', response.status_code
            ) from e

    def _ok_json(self, response: httpx.Response, *, what: str) -> Any:
        if response.status_code == 404:
            raise NotFoundError(f'{what} not found')
        if response.is_error:
            raise NetworkError(
                f'{what} request failed with HTTP {response.status_code}', response.status_code
            )
        return self._json(response)

    def _ok_object(self, response: httpx.Response, *, what: str) -> Dict[str, Any]:
        data = self._ok_json(response, what=what)
        if not isinstance(data, dict):
            raise NetworkError(f'Malformed {what} response', response.status_code)
        return data

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    @Logger.io
    async def get_venue(self, *, venue_id: str) -> Venue:
        response = await self._request('GET', f'/venues/{venue_id}')
        data = self._ok_object(response, what=f'Venue {venue_id}')
        return Venue(
            id=str(data.get('id', venue_id)),
            name=data.get('name') or '',
            organization_id=data.get('organization_id'),
            timezone=data.get('timezone'),
        )

    @Logger.io(truncate_content=True)
    async def list_active_activities(self, *, venue_id: str) -> List[Dict[str, Any]]:
        response = await self._request(
            'GET', f'/venues/{venue_id}/activities', params={'status': 'active'}
        )
        data = self._ok_json(response, what=f'Activities of venue {venue_id}')
        records = data.get('activities', []) if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise NetworkError(f'Malformed activities response for venue {venue_id}')
        return [record for record in records if isinstance(record, dict)]

    # ------------------------------------------------------------------
    # Live sessions
    # ------------------------------------------------------------------

    @Logger.io(truncate_content=True)
    async def list_sessions(
        self, *, activity_id: str, start: datetime, end: datetime
    ) -> List[LiveSession]:
        response = await self._request(
            'GET',
            f'/activities/{activity_id}/sessions',
            params={'from': start.isoformat(), 'to': end.isoformat()},
        )
        data = self._ok_json(response, what=f'Sessions of activity {activity_id}')
        payloads = data.get('sessions', []) if isinstance(data, dict) else data
        if not isinstance(payloads, list):
            raise NetworkError(f'Malformed sessions response for activity {activity_id}')
        sessions = []
        for payload in payloads:
            session = LiveSession.from_payload(payload) if isinstance(payload, dict) else None
            if session is None:
                Logger.base.warning(f'⚠️ [REMOTE] Skipping malformed session payload: {payload!r}')
                continue
            sessions.append(session)
        return sessions

    @Logger.io
    async def check_session_availability(self, *, session_id: str) -> Optional[int]:
        response = await self._request('GET', f'/sessions/{session_id}/availability')
        if response.status_code == 404:
            return None
        data = self._ok_object(response, what=f'Session {session_id}')
        remaining = data.get('capacity_remaining')
        if remaining is None:
            return None
        try:
            return int(remaining)
        except (TypeError, ValueError) as e:
            raise NetworkError(f'Malformed Session {session_id} response', response.status_code) from e

    # ------------------------------------------------------------------
    # Discounts
    # ------------------------------------------------------------------

    async def _validate(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request('POST', path, json=payload)
        if response.status_code >= 500:
            raise NetworkError(
                f'Discount validation failed with HTTP {response.status_code}', response.status_code
            )
        data = self._json(response)
        if not isinstance(data, dict):
            return {'valid': False, 'error': 'Invalid validation response'}
        if response.is_error and 'valid' not in data:
            data = {**data, 'valid': False}
        return data

    @Logger.io
    async def validate_promo_code(
        self, *, code: str, amount: Decimal, activity_id: str
    ) -> PromoValidationResult:
        data = await self._validate(
            '/promo-codes/validate',
            {'code': code, 'amount': money_to_json(amount), 'activity_id': activity_id},
        )
        if not data.get('valid'):
            return PromoValidationResult(is_valid=False, error=data.get('error') or 'Invalid promo code')
        try:
            discount = PromoCodeDiscount(
                code=data.get('code') or code,
                discount_type=DiscountType(data.get('discount_type')),
                value=data.get('discount_value'),
            )
        except ValueError:
            return PromoValidationResult(is_valid=False, error='Unsupported promo code')
        return PromoValidationResult(is_valid=True, discount=discount)

    @Logger.io
    async def validate_ticket_type_promo(
        self, *, code: str, ticket_type_id: str, activity_id: str
    ) -> TicketTypePromoValidationResult:
        data = await self._validate(
            '/ticket-type-promos/validate',
            {'code': code, 'ticket_type_id': ticket_type_id, 'activity_id': activity_id},
        )
        if not data.get('valid'):
            return TicketTypePromoValidationResult(
                is_valid=False, error=data.get('error') or 'Invalid promo code'
            )
        try:
            promo = TicketTypePromo(
                code=data.get('code') or code,
                ticket_type_id=str(data.get('ticket_type_id') or ticket_type_id),
                rate=Decimal(str(data.get('discount_percentage', 0))) / 100,
            )
        except (ArithmeticError, ValueError):
            return TicketTypePromoValidationResult(is_valid=False, error='Unsupported promo code')
        return TicketTypePromoValidationResult(is_valid=True, promo=promo)

    @Logger.io
    async def validate_gift_card(self, *, code: str) -> GiftCardValidationResult:
        data = await self._validate('/gift-cards/validate', {'code': code})
        if not data.get('valid'):
            return GiftCardValidationResult(
                is_valid=False, error=data.get('error') or 'Invalid gift card code'
            )
        return GiftCardValidationResult(is_valid=True, balance=data.get('balance', 0))

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    @Logger.io
    async def create_checkout(self, *, request: CheckoutRequest) -> CheckoutResult:
        payload = {
            'venue_id': request.venue_id,
            'activity_id': request.activity_id,
            'session_id': request.session_id,
            'booking_date': request.date,
            'start_time': request.start_time,
            'end_time': request.end_time,
            'party_size': request.party_size,
            'customer': {
                'first_name': request.contact.first_name,
                'last_name': request.contact.last_name,
                'email': request.contact.email,
                'phone': request.contact.phone,
            },
            'total_amount': money_to_json(request.total),
            'price_id': request.price_reference,
            'promo_code': request.promo_code,
            'gift_card_code': request.gift_card_code,
        }
        response = await self._request('POST', '/checkout', json=payload)

        if response.status_code == 409:
            try:
                data = response.json()
            except ValueError:
                data = None
            message = data.get('error') if isinstance(data, dict) else None
            raise AvailabilityConflictError(message or 'Selected time is no longer available')
        if response.status_code >= 500:
            raise NetworkError(
                f'Checkout failed with HTTP {response.status_code}', response.status_code
            )

        data = self._json(response)
        if not isinstance(data, dict):
            return CheckoutResult(error='Invalid checkout response')
        if response.is_error or not data.get('url'):
            return CheckoutResult(error=data.get('error') or 'Failed to create checkout session')
        return CheckoutResult(redirect_url=data['url'], reservation_id=data.get('booking_id'))
