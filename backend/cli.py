#!/usr/bin/env python3
"""
CoinShop CLI

Command-line interface for auction maintenance, metal prices and admin setup.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add backend directory to path
sys.path.insert(0, str(Path(__file__).parent))

# Load .env file
from dotenv import load_dotenv
load_dotenv()

import click
from rich.console import Console
from rich.table import Table

from coinshop.core.config import settings

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format=settings.log_format,
)

console = Console()


@click.group()
def cli():
    """CoinShop CLI - Auctions, metal prices and store maintenance"""
    pass


@cli.command()
def init_db():
    """Initialize database tables"""
    console.print("[bold blue]Initializing Database[/bold blue]")

    async def init():
        from coinshop.core.database import init_db

        with console.status("[bold green]Creating tables..."):
            await init_db()

        console.print("[bold green]✓ Database initialized[/bold green]")

    asyncio.run(init())


@cli.command()
def close_auctions():
    """Close every auction whose end time has passed"""
    console.print("[bold blue]Closing Expired Auctions[/bold blue]")

    async def run_sweep():
        from coinshop.core.database import get_db_context
        from coinshop.services.auctions import close_expired_auctions

        with console.status("[bold green]Sweeping auctions..."):
            async with get_db_context() as db:
                sweep = await close_expired_auctions(db)

        if not sweep.closed:
            console.print("[yellow]No expired auctions[/yellow]")
            return

        table = Table(title="Closed Auctions")
        table.add_column("Auction", style="cyan")
        table.add_column("Status", style="magenta")
        table.add_column("Final Bid", style="green")
        table.add_column("Order", style="dim")

        for result in sweep.closed:
            table.add_row(
                str(result.auction_id),
                result.status.value,
                f"${result.final_bid:,.2f}",
                str(result.order_id) if result.order_id else "-",
            )

        console.print(table)
        console.print(
            f"[bold green]✓ {len(sweep.closed)} closed "
            f"({sweep.sold} sold, {sweep.expired} expired)[/bold green]"
        )

    asyncio.run(run_sweep())


@cli.command()
@click.option(
    "--refresh/--cached",
    default=True,
    help="Fetch from the live feed, or read the stored snapshot",
)
def metals(refresh: bool):
    """Show current precious metal spot prices"""

    async def show_prices():
        from coinshop.core.database import get_db_context
        from coinshop.services.metals import MetalsPriceCache, MetalsPriceService

        service = MetalsPriceService(cache=MetalsPriceCache(settings.metals_cache_seconds))
        async with get_db_context() as db:
            if refresh:
                prices = await service.refresh(db)
            else:
                prices = await service.get_prices(db)

        table = Table(title=f"Spot Prices ({prices.currency}/oz)")
        table.add_column("Metal", style="cyan")
        table.add_column("Price", style="magenta", justify="right")
        for metal in ("gold", "silver", "platinum", "palladium"):
            table.add_row(metal.title(), f"{getattr(prices, metal):,.2f}")

        console.print(table)
        console.print(f"Source: {prices.source}  ·  {prices.timestamp.isoformat()}")

    asyncio.run(show_prices())


@cli.command()
@click.argument("email")
@click.option("--name", default=None, help="Display name")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Account password (prompted if omitted)",
)
def create_admin(email: str, name: str, password: str):
    """Create an admin account"""

    async def create():
        from coinshop.core.database import get_db_context
        from coinshop.models.user import UserRole
        from coinshop.services.auth import create_user, get_user_by_email

        if len(password) < 8:
            console.print("[red]Error: password must be at least 8 characters[/red]")
            return

        async with get_db_context() as db:
            if await get_user_by_email(db, email):
                console.print(f"[red]Error: {email} is already registered[/red]")
                return
            user = await create_user(db, email, password, role=UserRole.ADMIN, name=name)

        console.print(f"[bold green]✓ Admin created[/bold green] {user.email} ({user.id})")

    asyncio.run(create())


@cli.command()
def training_stats():
    """Summarize the coin grading training data"""
    from coinshop.services.training import TrainingDataStore

    store = TrainingDataStore()
    stats = store.stats()

    console.print(f"[bold blue]Training Data[/bold blue] {store.root}")
    console.print(f"Total entries: {stats['total']}")

    for title, counts in (("By Type", stats["by_type"]), ("By Grade", stats["by_grade"])):
        if not counts:
            continue
        table = Table(title=title)
        table.add_column("Value", style="cyan")
        table.add_column("Count", style="magenta", justify="right")
        for value, count in sorted(counts.items(), key=lambda kv: -kv[1]):
            table.add_row(value, str(count))
        console.print(table)


@cli.command()
@click.option(
    "--auctions",
    default=3,
    help="Number of demo auctions to open",
)
def seed(auctions: int):
    """Create demo categories, products and auctions"""
    console.print("[bold blue]Generating Demo Data[/bold blue]")
    console.print("=" * 60)

    async def generate():
        import random
        from datetime import timedelta
        from decimal import Decimal

        from sqlalchemy import select

        from coinshop.core.clock import utcnow
        from coinshop.core.database import get_db_context
        from coinshop.models.product import Category, ListingType, MetalType, Product, ProductStatus
        from coinshop.models.user import User, UserRole
        from coinshop.services.auctions import create_auction
        from coinshop.services.catalog import create_category, create_product

        demo_coins = [
            ("1921 Morgan Dollar", MetalType.SILVER, "0.7734", "MS-63", "PCGS", 1921, "P", "85.00"),
            ("1986 American Silver Eagle", MetalType.SILVER, "1.0000", "MS-69", "NGC", 1986, "S", "95.00"),
            ("1924 Saint-Gaudens Double Eagle", MetalType.GOLD, "0.9675", "MS-64", "PCGS", 1924, "P", "2650.00"),
            ("1909-S VDB Lincoln Cent", MetalType.COPPER, None, "VF-30", "PCGS", 1909, "S", "1450.00"),
            ("2021 American Gold Eagle Type 2", MetalType.GOLD, "1.0000", "MS-70", "NGC", 2021, "W", "2350.00"),
            ("1893-S Morgan Dollar", MetalType.SILVER, "0.7734", "F-12", "PCGS", 1893, "S", "4800.00"),
        ]

        async with get_db_context() as db:
            staff = (
                await db.execute(select(User).where(User.role == UserRole.ADMIN).limit(1))
            ).scalar_one_or_none()
            if staff is None:
                console.print("[red]No admin account found.[/red]")
                console.print("Create one first: ./cli.py create-admin you@example.com")
                return

            category = (
                await db.execute(select(Category).where(Category.slug == "us-coins"))
            ).scalar_one_or_none()
            if category is None:
                category = await create_category(db, "US Coins", description="United States coinage")

            created: list[Product] = []
            with console.status("[bold green]Creating products..."):
                for i, (title, metal, weight, grade, cert, year, mint, price) in enumerate(demo_coins):
                    sku = f"DEMO-{year}-{mint}-{i:03d}"
                    existing = (
                        await db.execute(select(Product).where(Product.sku == sku))
                    ).scalar_one_or_none()
                    if existing:
                        continue
                    created.append(
                        await create_product(
                            db,
                            {
                                "sku": sku,
                                "title": title,
                                "description": f"{title}, {cert} {grade}",
                                "category_id": category.id,
                                "listing_type": ListingType.BOTH,
                                "price": Decimal(price),
                                "metal_type": metal,
                                "metal_weight": Decimal(weight) if weight else None,
                                "year": year,
                                "mint": mint,
                                "grade": grade,
                                "certification": cert,
                                "status": ProductStatus.ACTIVE,
                                "featured": random.random() > 0.5,
                            },
                        )
                    )

            console.print(f"[green]✓ Created {len(created)} products[/green]")

            opened = 0
            now = utcnow()
            for product in created[:auctions]:
                start = (product.price * Decimal("0.6")).quantize(Decimal("1"))
                await create_auction(
                    db,
                    staff,
                    product_id=product.id,
                    starting_price=start,
                    end_time=now + timedelta(days=random.randint(1, 7)),
                    buy_now_price=(product.price * Decimal("1.2")).quantize(Decimal("1")),
                )
                opened += 1

            console.print(f"[green]✓ Opened {opened} auctions[/green]")
            console.print()
            console.print("[bold green]✓ Demo data generation complete![/bold green]")

    asyncio.run(generate())


if __name__ == "__main__":
    cli()
