from dataclasses import dataclass
import os
from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")

    db_path: str = os.getenv("NOTENMEISTER_DB_PATH", "data/notenmeister.db")
    export_dir: str = os.getenv("NOTENMEISTER_EXPORT_DIR", "exports")
    student_name: str = os.getenv("NOTENMEISTER_STUDENT_NAME", "")

    web_mode: bool = os.getenv("NOTENMEISTER_WEB", "0") == "1"
    port: int = int(os.getenv("PORT", "8550"))
    log_level: str = os.getenv("NOTENMEISTER_LOG_LEVEL", "INFO").upper()

    @property
    def cloud_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


settings = Settings()
