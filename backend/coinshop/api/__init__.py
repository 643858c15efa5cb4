"""CoinShop API package."""
