from invoke import task


@task
def lint(c):
    c.run("ruff check .")


@task
def format_check(c):
    c.run("ruff format --check .")


@task
def test(c):
    c.run("pytest")


@task
def update_scores(c, config=None):
    args = f" --config {config}" if config else ""
    c.run(f"pillar-ranker run{args}")


@task
def ci(c):
    lint(c)
    format_check(c)
    test(c)
