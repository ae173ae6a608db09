from backoffice.config import get_settings
from backoffice.db.engine import get_engine
from backoffice.db.schema import metadata

def main():
    engine = get_engine(get_settings().DATABASE_URL)
    metadata.drop_all(engine)
    metadata.create_all(engine)
    print("DB schema created.")

if __name__ == "__main__":
    main()
