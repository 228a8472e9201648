from bootloader.cli.main import main

main()
