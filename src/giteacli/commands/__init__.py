"""Built-in CLI sub-commands for giteacli.

* :mod:`~giteacli.commands.login` -- add, list, show, delete, and refresh
  stored logins.
* :mod:`~giteacli.commands.whoami` -- show the user behind a login.

Multi-command groups export a :class:`typer.Typer` sub-application;
single commands export a plain function registered on the root app.
"""
