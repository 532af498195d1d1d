from pydantic_settings import BaseSettings, SettingsConfigDict

from sitebundle.models import AssetSelectionPolicy, KeyDerivationPolicy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Site Bundle Publisher"
    app_version: str = "1.0.0"
    # ISO-8601; stamped at footer time when empty
    build_timestamp: str = ""

    # "local" writes under base_storage_dir, "supabase" uses Supabase Storage
    storage_backend: str = "local"
    base_storage_dir: str = "./data"
    public_base_url: str = "http://localhost:8000"
    host: str = "0.0.0.0"
    port: int = 8000

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""        # anon/service_role key
    supabase_bucket: str = "sites"

    asset_selection_policy: AssetSelectionPolicy = AssetSelectionPolicy.DIRECTORY_RELATIVE
    key_derivation_policy: KeyDerivationPolicy = KeyDerivationPolicy.JOB_SCOPED
    asset_folders: list[str] = ["css", "js", "img", "images", "fonts"]

    relocation_concurrency: int = 8
    pipeline_timeout: float = 300.0
    max_upload_bytes: int = 100 * 1024 * 1024

    @property
    def files_base(self) -> str:
        return f"{self.public_base_url.rstrip('/')}/files"

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


settings = Settings()
