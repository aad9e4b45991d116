import typer

app = typer.Typer()


@app.command()
def create_staff_user(participant_type: str = "Management"):
    from models import factory_session
    from repository.user import create_user
    from core.security import generate_hash_password
    from models.User import STAFF_PARTICIPANT_TYPES

    if participant_type not in STAFF_PARTICIPANT_TYPES:
        typer.echo(f"participant type must be one of {', '.join(STAFF_PARTICIPANT_TYPES)}")
        raise typer.Exit(code=1)

    email = typer.prompt("email")
    password = typer.prompt("password", hide_input=True)

    with factory_session() as db:
        create_user(
            db=db,
            email=email,
            username=email,
            password=generate_hash_password(password),
            participant_type=participant_type,
            is_active=True,
            is_commit=True,
        )


@app.command()
def initial_data():
    from seeders.initial_seeders import initial_seeders

    initial_seeders()


@app.command()
def issue_ticket(user_id: str, activity_id: str):
    from models import factory_session
    from core.secure_ticket import secure_ticket_service

    with factory_session() as db:
        ticket = secure_ticket_service.issue(db, user_id, activity_id)
    typer.echo(f"ticket id: {ticket.ticket_id}")
    typer.echo(f"expires at: {ticket.expires_at.isoformat()}")
    typer.echo(ticket.token)


@app.command()
def retry_pending_tickets(user_id: str = typer.Option(None)):
    from models import factory_session
    from core.enrollment_scheduler import enrollment_scheduler

    with factory_session() as db:
        results = enrollment_scheduler.retry_pending_tickets(db, user_id=user_id)
    pending = [r for r in results if r.ticket_pending]
    typer.echo(f"{len(results) - len(pending)} issued, {len(pending)} still pending")


@app.command()
def legacy_token(user_id: str):
    """Print a legacy ticket, only for migrating printed codes and testing scanners"""
    from core.legacy_ticket import generate_legacy_token
    from settings import LEGACY_TICKET_PREFIX

    typer.echo(generate_legacy_token(user_id, prefix=LEGACY_TICKET_PREFIX))


if __name__ == "__main__":
    app()
