
import argparse

from sqlalchemy.orm import Session
from seohub.db.session import SessionLocal
from seohub.repository.store_repo import create_store, get_by_url


# 登记一个 WooCommerce 店铺凭证（bulk job 的 store_id 指向它）：
#   python scripts/create_store.py --user-id u1 --name "My Shop" \
#       --url https://shop.example.com --key ck_xxx --secret cs_xxx
# （确保 PYTHONPATH 指向 backend/）

def main():
    parser = argparse.ArgumentParser(description="Register WooCommerce store credentials")
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--url", required=True)
    parser.add_argument("--key", required=True)
    parser.add_argument("--secret", required=True)
    args = parser.parse_args()

    db: Session = SessionLocal()
    try:
        existing = get_by_url(db, args.user_id, args.url)
        if existing:
            print(f"Store exists: {existing.id}")
            return
        store = create_store(
            db,
            user_id=args.user_id,
            store_name=args.name,
            store_url=args.url,
            consumer_key=args.key,
            consumer_secret=args.secret,
        )
        print(f"Store created: {store.id}")
    finally:
        db.close()

if __name__ == "__main__":
    main()
