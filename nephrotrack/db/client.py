"""
Supabase client wrapper for NephroTrack.

Provides singleton access to the Supabase client with configuration read
from the environment.
"""

import os
from typing import Optional

from supabase import create_client, Client


class SupabaseConfig:
  """Configuration for Supabase connection."""

  def __init__(self):
    self.url = os.environ.get("SUPABASE_URL")
    self.anon_key = os.environ.get("SUPABASE_ANON_KEY")
    self.service_key = os.environ.get("SUPABASE_SERVICE_KEY")

  @property
  def is_configured(self) -> bool:
    return bool(self.url and (self.anon_key or self.service_key))

  def validate(self) -> None:
    """Raise error if not properly configured."""
    if not self.url:
      raise ValueError("SUPABASE_URL environment variable not set")
    if not (self.anon_key or self.service_key):
      raise ValueError("SUPABASE_ANON_KEY or SUPABASE_SERVICE_KEY environment variable not set")


class SupabaseClient:
  """Thin wrapper around the Supabase client."""

  def __init__(self, client: Client):
    self._client = client

  @property
  def client(self) -> Client:
    return self._client

  def table(self, name: str):
    """Get a table reference for queries."""
    return self._client.table(name)

  def rpc(self, fn_name: str, params: dict = None):
    """Call a database function."""
    return self._client.rpc(fn_name, params or {})


# -----------------------------------------------------------------------------
# Singleton instances
# -----------------------------------------------------------------------------

_client: Optional[SupabaseClient] = None
_admin_client: Optional[SupabaseClient] = None
_config: Optional[SupabaseConfig] = None


def get_config() -> SupabaseConfig:
  """Get the Supabase configuration (singleton)."""
  global _config
  if _config is None:
    _config = SupabaseConfig()
  return _config


def get_client() -> SupabaseClient:
  """
  Get the Supabase client (singleton).

  Uses the anon key, which respects Row Level Security.
  """
  global _client
  if _client is None:
    config = get_config()
    config.validate()
    _client = SupabaseClient(create_client(config.url, config.anon_key or config.service_key))
  return _client


def get_admin_client() -> SupabaseClient:
  """
  Get the admin Supabase client (singleton).

  Uses the service_role key, which bypasses Row Level Security. The
  progression engine writes through this client in background jobs.
  """
  global _admin_client
  if _admin_client is None:
    config = get_config()
    config.validate()
    if not config.service_key:
      raise ValueError("SUPABASE_SERVICE_KEY environment variable not set")
    _admin_client = SupabaseClient(create_client(config.url, config.service_key))
  return _admin_client


def is_configured() -> bool:
  """Check if Supabase is configured without raising errors."""
  return get_config().is_configured


def reset_clients() -> None:
  """Reset client singletons (useful for testing)."""
  global _client, _admin_client, _config
  _client = None
  _admin_client = None
  _config = None
