from supabase import create_client, Client
from squad_planner.config import settings
from squad_planner.database.rows import RowAccessor


class SupabaseClient:
    _client: Client = None
    _service_client: Client = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            cls._client = create_client(settings.supabase_url, settings.supabase_key)
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        """Client with service_role key; bypasses RLS. Used for system messages."""
        if cls._service_client is None and settings.supabase_service_role_key:
            cls._service_client = create_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._service_client or cls.get_client()

    @classmethod
    def reset_client(cls):
        cls._client = None
        cls._service_client = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def make_rows(client: Client) -> RowAccessor:
    return RowAccessor(
        client,
        read_attempts=settings.read_attempts,
        write_attempts=settings.write_attempts,
        base_delay=settings.retry_base_delay_seconds,
        max_delay=settings.retry_max_delay_seconds,
    )


def get_rows() -> RowAccessor:
    return make_rows(SupabaseClient.get_client())


def get_service_rows() -> RowAccessor:
    return make_rows(SupabaseClient.get_service_client())
