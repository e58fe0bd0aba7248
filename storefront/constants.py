CART_STORAGE_KEY = "cart-storage"
CART_STORAGE_VERSION = 0

CART_SESSION_COOKIE = "cart_session"

CATEGORIES = (
    "Appetizers",
    "Main Course",
    "Pizza",
    "Burgers",
    "Desserts",
    "Beverages",
    "Salads",
    "Pasta",
    "Seafood",
)

# the hosted checkout fills this placeholder in the success url
CHECKOUT_SESSION_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"
