#!/usr/bin/env python3
"""
Interactive helper that writes the .env file read by dependencies.load_dotenv().
"""

import os
import getpass
import secrets


def render_env(mongodb_uri: str, mongodb_db: str, jwt_secret: str, cors_origins: str) -> str:
    return f"""# Database Configuration
MONGODB_URI={mongodb_uri}
MONGODB_DB={mongodb_db}

# Authentication
JWT_SECRET={jwt_secret}
ACCESS_TOKEN_EXPIRE_MINUTES=720

# MITRE ATT&CK technique feed
MITRE_FETCH_TIMEOUT_SECONDS=30
MITRE_CACHE_SECONDS=86400

# Server
CORS_ALLOW_ORIGINS={cors_origins}
LOG_LEVEL=INFO
"""


def create_env_file(path: str = ".env"):
    """Prompt for settings and write them to the .env file."""

    print("🛡️  ISMS Risk Register Environment Setup")
    print("=" * 40)

    if os.path.exists(path):
        overwrite = input("⚠️  .env file already exists. Overwrite? (y/N): ").lower()
        if overwrite != "y":
            print("❌ Setup cancelled.")
            return

    print("\n🗄️  MongoDB")
    mongodb_uri = input("Enter MongoDB URI (default: mongodb://localhost:27017): ").strip() or "mongodb://localhost:27017"
    mongodb_db = input("Enter database name (default: cycorgi): ").strip() or "cycorgi"

    print("\n🔐 JWT Secret")
    jwt_secret = getpass.getpass("Enter JWT secret (or press Enter to generate one): ").strip()
    if not jwt_secret:
        jwt_secret = secrets.token_urlsafe(48)
        print("🔑 Generated a random JWT secret.")

    print("\n🌐 CORS")
    cors_origins = input("Allowed origins, comma separated (default: http://localhost:3000): ").strip() or "http://localhost:3000"

    try:
        with open(path, "w") as f:
            f.write(render_env(mongodb_uri, mongodb_db, jwt_secret, cors_origins))

        print("\n✅ .env file created successfully!")
        print("\n📝 Next steps:")
        print("1. Install dependencies: pip install -e .")
        print("2. Migrate legacy records: python migrations.py --dry-run")
        print("3. Start the server: uvicorn main:app --reload --host 0.0.0.0 --port 8000")
    except OSError as e:
        print(f"❌ Error creating .env file: {e}")


if __name__ == "__main__":
    create_env_file()
