# Telegram front end for the taskboard client.
#
#   bot_base.py  - config, auth, argument parsing, confirmation, audit log
#   board_bot.py - board, card and assistant commands
