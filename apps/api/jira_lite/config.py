from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://jiralite:jiralite@db:5432/jiralite"
  database_echo: bool = False
  app_secret: str = "dev-secret-change-me"
  app_url: str = "http://localhost:3000"
  app_version: str = "0.1.0"

  cookie_secure: bool = False
  cookie_domain: str | None = None
  session_ttl_days: int = 14
  invite_ttl_days: int = 7
  password_reset_ttl_minutes: int = 60

  rate_limit_login_ip_per_minute: int = 60
  rate_limit_login_email_per_minute: int = 20
  rate_limit_password_reset_email_per_minute: int = 5

  cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
  trusted_hosts: str = "localhost,127.0.0.1,0.0.0.0,api,web,test"

  smtp_host: str = "127.0.0.1"
  smtp_port: int = 1025
  smtp_username: str | None = None
  smtp_password: str | None = None
  smtp_starttls: bool = False
  mail_from: str = "no-reply@jira-lite.local"
  mail_enabled: bool = True

  log_level: str = "INFO"

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]


settings = Settings()
