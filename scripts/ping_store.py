
import sys

from seohub.db.session import SessionLocal
from seohub.integrations.woocommerce.http_client import WooHttpClient
from seohub.repository.store_repo import get_store

if __name__ == "__main__":
    db = SessionLocal()
    try:
        store = get_store(db, sys.argv[1])
    finally:
        db.close()
    if store is None:
        sys.exit("store not found")
    products = WooHttpClient.from_store(store).list_products(page=1, per_page=1)
    print(products[0] if products else "no products")


# 运行
# export $(grep -v '^#' .env | xargs)   # 若你用 .env
# python scripts/ping_store.py <store_id>

# 能打印出一个商品说明 store_url / consumer key / secret 都 OK
