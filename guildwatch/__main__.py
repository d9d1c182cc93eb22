from guildwatch.daemon import run

run()
