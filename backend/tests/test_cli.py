"""Flask CLI commands."""

from visitdesk.models import Product
from visitdesk.services import auth_service, pricing_service, visit_service


def test_system_init_seeds_prices_once(app, db_session, admin_password):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['system', 'init', '--admin-password', admin_password])
    assert result.exit_code == 0
    assert 'DONE' in result.output

    again = runner.invoke(args=['system', 'init'])
    assert 'already exists' in again.output

    assert db_session.query(Product).count() == 4
    assert pricing_service.get_active_price(pricing_service.FIRST_HOUR) == 1500
    assert auth_service.check_admin_password(admin_password)


def test_set_price(app, db_session, prices):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['products', 'set-price', 'Extension hour', '650'])

    assert 'PASS' in result.output
    assert pricing_service.get_active_price(pricing_service.EXTENSION_HOUR) == 650


def test_visits_list_and_end(app, db_session, start_visit):
    visit = start_visit(pax=2, name="Cli Party")
    runner = app.test_cli_runner()

    listing = runner.invoke(args=['visits', 'list'])
    assert 'Cli Party' in listing.output
    assert 'Total people inside: 2' in listing.output

    ended = runner.invoke(args=['visits', 'end', visit.id])
    assert 'PASS' in ended.output
    assert visit_service.get_visit(visit.id).status == 'CLOSED'
