"""CoinShop - coin dealer storefront, consignment portal and auction backend."""

__version__ = "0.1.0"
