from capi_cli.app import main

main()
