import logging
import click

from .admin import grant_role, init_db, maintenance, review, seed_roles, shop_hidden


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False)
def cli(verbose):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)

cli.add_command(init_db,"init-db")
cli.add_command(seed_roles,"seed-roles")
cli.add_command(grant_role,"grant-role")
cli.add_command(maintenance,"maintenance")
cli.add_command(shop_hidden,"shop-hidden")
cli.add_command(review,"review")

if __name__ == '__main__':
    cli()
