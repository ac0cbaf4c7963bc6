from vvrelease.cli.app import main

main()
