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
def simulate(c, projects=8, voters=4, rounds=50):
    c.run(
        f"harbour-battles simulate --projects {projects} --voters {voters} --rounds {rounds}"
    )


@task
def ci(c):
    lint(c)
    format_check(c)
    test(c)
