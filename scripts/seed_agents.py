from supabase import create_client

from twin_api.services.storage import StorageService
from twin_lib.config import get_settings

def seed_agents():
    """Make sure the agents table holds every core persona exactly once"""
    try:
        settings = get_settings()
        if not settings.storage_configured:
            raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set to seed agents")

        storage = StorageService(create_client(settings.supabase_url, settings.supabase_key))
        created = storage.seed_default_agents()
        if created:
            print(f"Created agents: {', '.join(created)}")
        else:
            print("All core agents already exist.")

    except Exception as e:
        print(f"Error seeding agents: {str(e)}")
        raise

if __name__ == "__main__":
    seed_agents()
