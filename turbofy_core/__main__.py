from turbofy_core.app import main

main()
