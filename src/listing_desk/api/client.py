"""
Hosted listings store client

Talks to the hosted database over its REST surface:
- Table rows: PostgREST at <SUPABASE_URL>/rest/v1/<table>
- Photos: Storage at <SUPABASE_URL>/storage/v1/object/<bucket>/<path>

Both clients authenticate with the project's anon key (sent as `apikey`
and as a Bearer token). Calls are made once: there is no retry, backoff or
offline queue. Any failure is raised as ListingStoreError with the remote
message so the caller can show it verbatim.
"""
import logging
import random
import time
import requests
from typing import Optional, Dict, Any, List, Iterable
from urllib.parse import quote

from .config import Config
from ..models.listing import PROPERTY_ID, next_property_id


LOGGER = logging.getLogger(__name__)


class ListingStoreError(Exception):
    """Custom exception for hosted store errors"""
    def __init__(self, message: str, status_code: int = None, response: Any = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class StoreNotConfiguredError(ListingStoreError):
    """Raised when the store URL or key is missing"""
    def __init__(self, message: str = None):
        super().__init__(
            message or "Listing store is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY.",
            status_code=503
        )


def _build_session(api_key: str) -> requests.Session:
    session = requests.Session()
    # Avoid picking up unrelated HTTP_PROXY/HTTPS_PROXY from the environment
    session.trust_env = False
    if api_key:
        session.headers.update({
            'apikey': api_key,
            'Authorization': f'Bearer {api_key}',
        })
    return session


def _error_message(response: requests.Response) -> str:
    """Extract the remote error message from a failed response"""
    try:
        error_data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"
    if isinstance(error_data, dict):
        for key in ('message', 'error_description', 'error', 'msg'):
            if error_data.get(key):
                return str(error_data[key])
    return f"HTTP {response.status_code}"


class _RestClient:
    """Shared request handling for the table and storage clients"""

    def __init__(self, base_url: str = None, api_key: str = None, timeout: int = None, session: requests.Session = None):
        self.base_url = (base_url if base_url is not None else Config.SUPABASE_URL).rstrip('/')
        self.api_key = api_key if api_key is not None else Config.SUPABASE_ANON_KEY
        self.timeout = timeout or Config.REQUEST_TIMEOUT
        self.session = session or _build_session(self.api_key)

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def require_configured(self):
        if not self.is_configured:
            LOGGER.error("[Store] client used without SUPABASE_URL/SUPABASE_ANON_KEY")
            raise StoreNotConfiguredError()

    def _make_request(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        data: bytes = None,
        params: dict = None,
        headers: dict = None
    ) -> Any:
        """
        Make a single request and decode the JSON body

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            path: Path below the project URL
            json_body: JSON request body
            data: Raw request body (storage uploads)
            params: Query parameters (PostgREST filters)
            headers: Extra headers

        Returns:
            Decoded JSON, or None for empty bodies
        """
        self.require_configured()
        url = f"{self.base_url}/{path.lstrip('/')}"

        if Config.DEBUG:
            LOGGER.debug("[Store] %s %s params=%s", method, url, params)

        try:
            response = self.session.request(
                method=method,
                url=url,
                json=json_body,
                data=data,
                params=params,
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            LOGGER.error("[Store] %s %s failed: %s", method, url, e)
            raise ListingStoreError(f"Request failed: {e}")

        if Config.DEBUG:
            LOGGER.debug("[Store] Response Status: %s", response.status_code)

        if not response.ok:
            message = _error_message(response)
            LOGGER.warning("[Store] %s %s -> %s: %s", method, url, response.status_code, message)
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise ListingStoreError(message, status_code=response.status_code, response=body)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text


class ListingStoreClient(_RestClient):
    """
    Client for the single listings table

    Rows are plain dicts keyed by column name. `Property ID` is the key used
    for update/delete, matched with an exact `eq` predicate.
    """

    def __init__(self, base_url: str = None, api_key: str = None, table: str = None,
                 timeout: int = None, session: requests.Session = None):
        super().__init__(base_url=base_url, api_key=api_key, timeout=timeout, session=session)
        self.table = table or Config.LISTINGS_TABLE

    @property
    def _table_path(self) -> str:
        return f"rest/v1/{quote(self.table, safe='_')}"

    @staticmethod
    def _eq(property_id: Any) -> Dict[str, str]:
        return {PROPERTY_ID: f"eq.{property_id}"}

    # ==================== QUERIES ====================

    def list_all(self) -> List[Dict[str, Any]]:
        """Return every row of the table (no server-side paging)"""
        rows = self._make_request('GET', self._table_path, params={'select': '*'})
        LOGGER.info("[Store] fetched %d rows from %s", len(rows or []), self.table)
        return rows or []

    def get(self, property_id: Any) -> Optional[Dict[str, Any]]:
        """Return the first row with the given Property ID, if any"""
        rows = self._make_request(
            'GET', self._table_path,
            params={'select': '*', **self._eq(property_id), 'limit': 1}
        )
        return rows[0] if rows else None

    # ==================== MUTATIONS ====================

    def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert one record

        When the record carries no Property ID it is assigned client-side as
        max(existing ids) + 1. Two concurrent creators can receive the same id;
        nothing here detects that.
        """
        record = dict(record)
        if record.get(PROPERTY_ID) in (None, ''):
            record[PROPERTY_ID] = next_property_id(self.list_all())
        rows = self._make_request(
            'POST', self._table_path,
            json_body=record,
            params={'select': '*'},
            headers={'Prefer': 'return=representation'}
        )
        LOGGER.info("[Store] inserted %s=%s", PROPERTY_ID, record[PROPERTY_ID])
        if isinstance(rows, list) and rows:
            return rows[0]
        return record

    def update(self, property_id: Any, patch: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Update the rows matching Property ID; the key itself is never patched"""
        payload = {k: v for k, v in patch.items() if k != PROPERTY_ID}
        rows = self._make_request(
            'PATCH', self._table_path,
            json_body=payload,
            params={'select': '*', **self._eq(property_id)},
            headers={'Prefer': 'return=representation'}
        )
        LOGGER.info("[Store] updated %s=%s", PROPERTY_ID, property_id)
        return rows or []

    def delete(self, property_id: Any) -> None:
        """Delete the rows matching Property ID"""
        self._make_request('DELETE', self._table_path, params=self._eq(property_id))
        LOGGER.info("[Store] deleted %s=%s", PROPERTY_ID, property_id)

    def delete_many(self, property_ids: Iterable[Any]) -> int:
        """Delete rows one id at a time; stops at the first error"""
        count = 0
        for property_id in property_ids:
            self.delete(property_id)
            count += 1
        return count


class PhotoStorageClient(_RestClient):
    """Client for the watermarked-photos storage bucket"""

    def __init__(self, base_url: str = None, api_key: str = None, bucket: str = None,
                 timeout: int = None, session: requests.Session = None):
        super().__init__(base_url=base_url, api_key=api_key, timeout=timeout, session=session)
        self.bucket = bucket or Config.PHOTOS_BUCKET

    def _object_path(self, path: str) -> str:
        return f"storage/v1/object/{quote(self.bucket, safe='')}/{quote(path, safe='/')}"

    @staticmethod
    def make_object_key(extension: str = 'jpg') -> str:
        """Timestamp + random key, e.g. uploads/1718000000000-123456.jpg"""
        timestamp = int(time.time() * 1000)
        suffix = random.randint(0, 999999)
        return f"uploads/{timestamp}-{suffix}.{extension}"

    def upload(self, path: str, data: bytes, content_type: str = 'image/jpeg',
               cache_control: str = '3600', upsert: bool = False) -> Dict[str, Any]:
        """Upload bytes under `path`; fails if the object exists and upsert is off"""
        result = self._make_request(
            'POST', self._object_path(path),
            data=data,
            headers={
                'Content-Type': content_type,
                'cache-control': f"max-age={cache_control}",
                'x-upsert': 'true' if upsert else 'false',
            }
        )
        LOGGER.info("[Storage] uploaded %s (%d bytes)", path, len(data))
        return result or {}

    def get_public_url(self, path: str) -> str:
        """Public URL of an object; computed locally, no request is made"""
        return f"{self.base_url}/storage/v1/object/public/{quote(self.bucket, safe='')}/{quote(path, safe='/')}"

    def remove(self, paths: List[str]) -> Any:
        """Delete objects from the bucket"""
        if not paths:
            return []
        result = self._make_request(
            'DELETE', f"storage/v1/object/{quote(self.bucket, safe='')}",
            json_body={'prefixes': list(paths)}
        )
        LOGGER.info("[Storage] removed %d objects", len(paths))
        return result


def create_clients(config=Config):
    """Build the table and storage clients once, for injection"""
    store = ListingStoreClient(
        base_url=config.SUPABASE_URL,
        api_key=config.SUPABASE_ANON_KEY,
        table=config.LISTINGS_TABLE,
        timeout=config.REQUEST_TIMEOUT
    )
    storage = PhotoStorageClient(
        base_url=config.SUPABASE_URL,
        api_key=config.SUPABASE_ANON_KEY,
        bucket=config.PHOTOS_BUCKET,
        timeout=config.REQUEST_TIMEOUT,
        session=store.session
    )
    if not store.is_configured:
        LOGGER.warning("[STARTUP] Listing store not configured; dashboard runs read-only with no data")
    return store, storage
