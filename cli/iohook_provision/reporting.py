import click


def sez(msg: str, ctx: str, err=False):
    click.echo("IOHOOK SEZ: " + ctx + msg, err=err)
