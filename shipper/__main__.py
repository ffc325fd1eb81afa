from shipper.cli.app import main

main()
